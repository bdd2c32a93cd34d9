"""Decision package turning verdicts into admission responses."""

from .assembler import Decision, Deny, Mutate, PassThrough, assemble

__all__ = ["Decision", "Deny", "Mutate", "PassThrough", "assemble"]
