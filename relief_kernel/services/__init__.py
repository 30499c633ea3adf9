"""Mutating services. All flush within the caller's transaction; none commit."""
