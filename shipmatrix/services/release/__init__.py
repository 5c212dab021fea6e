"""Release publishing: the replace-by-tag protocol and its stores."""
