"""llm_game_gen

Generate single-file HTML strategy games with an LLM and serve repeat
requests from a durable on-disk cache.

Primary entrypoints:
 - cli.py (Typer CLI)
 - generator.py (model probing, generation, write-through)
 - cache.py (cache index + storage operations)
 - extract.py (raw model output -> validated HTML)
"""

__all__ = [
    "cache",
    "extract",
    "generator",
    "store",
]
