"""Core building blocks shared by the bootstrap components."""
