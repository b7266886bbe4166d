"""
Core models for taxonomy tagging
"""
from .base import Term, TermTag
from .thesaurus import AlternativeTerm, AssociativeRelation, AssociativeRelationType, ConceptClass
