"""HackerOS-Steam command line interface."""
