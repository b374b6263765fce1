"""Background tasks for the spectrogram engine.

Modules:
    messages        Typed request/event dataclasses for both task protocols.
    analysis_task   Stateless analysis worker (thread + private event loop).
    draw_task       Stateful draw worker that owns one DrawSurface.
    orchestrator    Async front: analyze(), attach_surface(), draw().
"""
