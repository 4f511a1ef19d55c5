"""Language-model engines used for summarization."""
