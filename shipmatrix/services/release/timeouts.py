from __future__ import annotations

# gh reads and deletes
GH_TIMEOUT_SECONDS = 60.0

# gh release create uploads every bundle in one call
GH_UPLOAD_TIMEOUT_SECONDS = 30 * 60.0

# Pause between deleting a release and recreating it under the same tag, so
# the hosting side has settled the tag deletion.
REPLACE_PAUSE_SECONDS = 10.0
