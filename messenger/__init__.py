"""
Messenger chat simulation with a fuzzy-matching autoresponder persona.

Modules:
- text: normalization and tokenizing for comparisons
- similarity: edit (Jaro-Winkler), token-overlap and containment signals
- matcher: threshold policy, answer and fallback selection
- responses: load-once cache of the question -> answers table
- scheduler: delayed side effects on the event loop or a virtual clock
- store: message log, reactions, reply snapshots, seen-by
- contacts: pinned-first contact ordering
- autoresponder: the persona that reacts and replies
- persistence: JSON file snapshot of the whole state
- manager: Messenger facade used by the CLI
"""
