"""Query-and-validate pipeline.

Turns a natural-language request into a shell command by querying one of the
supported LLM providers:

- Provider payloads are encoded by hand with a byte-level JSON string
  escaper, so arbitrary (even undecodable) user input always yields a valid
  request body.
- Replies are read with a lenient key scan instead of a full JSON parse of the
  provider envelope; the envelopes differ per provider and only one string
  field is ever needed.
- Structured replies are validated into an immutable `CommandPlan`, retried
  with a fresh model query on schema failure.
- Transport failures fall back once to the offline `echo` provider.
"""
