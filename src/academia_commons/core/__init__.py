"""Core building blocks shared by every academia-commons feature."""
