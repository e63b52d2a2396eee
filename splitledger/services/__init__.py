"""External services: storage backends and speech collaborators."""
