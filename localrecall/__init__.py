"""LocalRecall backend: multi-provider AI layer and knowledge API."""
