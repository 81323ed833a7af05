"""Command-line interface for eegclean."""
