from shellmark.cli import entrypoint

entrypoint()
