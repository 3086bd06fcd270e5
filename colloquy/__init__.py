"""
Colloquy — Threaded Discussion Data Engine
==========================================
Stores and serves nested comment containers (zones → threads → messages),
attaches ephemeral and aggregate state to them (typing presence, emoji
reactions) and keeps cascading lifecycle behaviour consistent across the
hierarchy.  Identity, authentication and rendering belong to the host
application.

Package layout::

    colloquy/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Shared defaults (TTL, page limits, placeholder)
    ├── errors.py          # NotFound / InvalidState / PermissionDenied / …
    ├── client.py          # Async facade: auth hook + notification callbacks
    ├── __main__.py        # ``python -m colloquy`` typing-sweep worker
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session + async helper
    │   └── models.py      # Zone, Thread, Message, Reaction, TypingIndicator
    ├── engine/
    │   ├── extractor.py   # @mention / link token extraction
    │   ├── pagination.py  # Keyset cursor encode/decode + limit clamping
    │   └── results.py     # Typed result records returned by services
    └── services/
        ├── zone_service.py      # Zone registry (getOrCreate, metadata)
        ├── thread_service.py    # Threads, resolution, activity ordering
        ├── message_service.py   # Comments: create, edit, delete, resolve
        ├── reaction_service.py  # Idempotent reaction toggling + summaries
        ├── typing_service.py    # TTL presence registry + expiry sweep
        ├── cascade_service.py   # Zone / thread subtree deletion
        └── sweeper.py           # Background periodic + one-shot sweeps
"""

__version__ = "0.1.0"
