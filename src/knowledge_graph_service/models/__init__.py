"""Document, input and response models."""
