"""Categorical trait encoding and module-trait association."""

from coexnet.traits.association import AssociationResult, associate_traits, correlate_pair
from coexnet.traits.encoding import TraitEncoding, encode_trait, encode_traits

__all__ = [
    'AssociationResult',
    'associate_traits',
    'correlate_pair',
    'TraitEncoding',
    'encode_trait',
    'encode_traits',
]
