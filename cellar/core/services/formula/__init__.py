"""
Formula execution service.

Layers, innermost first: ``domain`` (pure rules) → ``execution``
(fetch, build, install, verify) → ``orchestration`` (the pipeline
state machine). Import from the layer you need; the public entry
points are re-exported by ``cellar.core.services.formula.orchestration``.
"""
