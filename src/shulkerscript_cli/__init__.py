__version__ = "0.1.0"

__all__ = [
    'cli', 'compiler', 'config', 'errors', 'migrate', 'model', 'planner',
    'scanner', 'schemas', 'terminal_output', 'transcribe', 'watch', 'writer',
]
