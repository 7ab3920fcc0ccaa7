"""ctxbundle - bounded multi-repository context bundles for LLM prompts."""

__version__ = "0.1.0"
