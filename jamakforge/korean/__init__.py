from .particles import (
    ParticleCategory,
    attach_particle,
    find_particle_spans,
    has_final_consonant,
    process_text,
    select_particle,
)

__all__ = [
    "ParticleCategory",
    "attach_particle",
    "find_particle_spans",
    "has_final_consonant",
    "process_text",
    "select_particle",
]
