"""VetChat: veterinary chat assistant with a deterministic booking flow."""

__version__ = "0.1.0"
