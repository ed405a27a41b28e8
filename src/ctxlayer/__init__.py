"""ctxlayer - assemble bounded, dependency-ordered context from user-authored fragments."""

__version__ = "0.1.0"
