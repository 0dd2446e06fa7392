"""
Batch raster pipeline: procedural layer composition and bulk photo edits.

Modules:
- layers: layer / trait model and stack editing
- selector: rarity-weighted trait picking
- render: fixed-size compositing with cover / contain fitting
- edit: photo-edit sessions, color filters and center-pivot geometry
- core: batch runner and the two pipelines built on it
- history: navigable preview history
- packager: archive layout, item naming and metadata
- assets: image decoding and discovery
- config: settings, presets and project-file loading
"""
