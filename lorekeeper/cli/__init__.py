"""Command-line interface for lorekeeper.

- ``python -m lorekeeper.cli extract --file novel.txt`` -- segment a
  manuscript and extract knowledge items (Ctrl-C pauses and saves a
  checkpoint)
- ``python -m lorekeeper.cli resume`` / ``restart`` -- continue or discard
  a paused or failed extraction
- ``python -m lorekeeper.cli duplicates`` -- list duplicate entry groups
- ``python -m lorekeeper.cli merge --all`` -- merge duplicate groups
- ``python -m lorekeeper.cli analyze --text "..."`` -- one-shot analysis
  of a short passage
"""
