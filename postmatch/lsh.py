"""
Locality-Sensitive Hashing (LSH) words for signature lookup.

This module implements LSH using bit sampling, which is optimal for
Hamming distance comparisons used in perceptual hashing.

The key insight: if two signatures are similar (low Hamming distance),
they likely share most of their bits. By sampling fixed subsets of bits
and packing them into integer "words", similar signatures will share at
least one word with high probability, so a posting list keyed on words
finds candidates without scanning the corpus.

Word values carry their slot index in the high bits. Equal bit patterns in
different slots therefore never collide, and an unordered overlap query
over the words of two signatures behaves like a slot-by-slot comparison.

Performance (defaults: 512-bit signatures, 32 words x 16 bits):
- Distance 0.05: ~100% chance to share a word
- Distance 0.10: ~99.8%
- Distance 0.50 (unrelated images): ~0.05%
"""

from __future__ import annotations

import random
from typing import Optional

from .config import NUM_WORDS, BITS_PER_WORD, SIGNATURE_BITS, LSH_SEED


class IndexGenerator:
    """
    Derives a fixed number of integer words from a signature.

    Each word samples a fixed subset of bit positions from the signature.
    Positions depend only on the constructor parameters, so every process
    generates identical words for identical signatures.

    A slice whose sampled bits are all equal carries no information (flat
    image regions produce all-zero gradients) and is reported as None
    instead of a value, so featureless images do not pile into one bucket.

    Usage:
        generator = IndexGenerator()
        words = generator.generate(fingerprint)
        # -> (1234, None, 70001, ...), always NUM_WORDS long
    """

    def __init__(
        self,
        num_words: int = NUM_WORDS,
        bits_per_word: int = BITS_PER_WORD,
        signature_bits: int = SIGNATURE_BITS,
        seed: int = LSH_SEED,
    ):
        """
        Initialize the generator.

        Args:
            num_words: Number of words per signature. More words = better
                       recall but more posting rows per signature.
            bits_per_word: Bits sampled per word. Fewer bits = more
                           candidates (better recall, more comparisons).
            signature_bits: Total bits in a signature.
            seed: Random seed fixing the sampled positions.
        """
        if not 0 < bits_per_word <= signature_bits:
            raise ValueError("bits_per_word must be between 1 and signature_bits")
        if num_words < 1:
            raise ValueError("num_words must be positive")
        self.num_words = num_words
        self.bits_per_word = bits_per_word
        self.signature_bits = signature_bits
        self.seed = seed

        # Generate bit positions for each word
        rng = random.Random(seed)
        self.bit_positions: list[list[int]] = [
            sorted(rng.sample(range(signature_bits), bits_per_word))
            for _ in range(num_words)
        ]

        self._full_mask = (1 << bits_per_word) - 1

    def _signature_to_bits(self, fingerprint) -> list[bool]:
        """
        Convert a signature to a flat list of bits.

        Args:
            fingerprint: An imagehash.ImageHash object

        Returns:
            Flat list of boolean values representing the signature bits
        """
        # imagehash stores as numpy array of bools
        bits = fingerprint.hash.flatten().tolist()
        if len(bits) != self.signature_bits:
            raise ValueError(
                f"Expected a {self.signature_bits}-bit signature, got {len(bits)} bits"
            )
        return bits

    def _word(self, bits: list[bool], slot: int) -> Optional[int]:
        """
        Pack the sampled bits of one slot into a tagged integer.

        Returns:
            slot << bits_per_word | sampled bits, or None for a degenerate slice
        """
        value = 0
        for position in self.bit_positions[slot]:
            value = (value << 1) | int(bits[position])
        if value == 0 or value == self._full_mask:
            return None
        return (slot << self.bits_per_word) | value

    def generate(self, fingerprint) -> tuple[Optional[int], ...]:
        """
        Generate the words of a signature.

        Args:
            fingerprint: imagehash.ImageHash object

        Returns:
            Tuple of num_words entries, each an int or None
        """
        bits = self._signature_to_bits(fingerprint)
        return tuple(self._word(bits, slot) for slot in range(self.num_words))

    def collision_probability(self, distance: float) -> float:
        """
        Probability that two signatures share at least one word.

        The math:
        - Two signatures at normalized distance d agree on one sampled bit
          with probability 1 - d, so on a whole word with (1 - d) ^ k
        - With L words, probability of at least one match is
          1 - (1 - (1 - d) ^ k) ^ L

        Degenerate slices are ignored here; they only lower the real rate
        for nearly featureless images.
        """
        if not 0.0 <= distance <= 1.0:
            raise ValueError("distance must be in [0, 1]")
        p_word = (1.0 - distance) ** self.bits_per_word
        return 1.0 - (1.0 - p_word) ** self.num_words

    def get_stats(self) -> dict:
        """Describe the generator's parameters."""
        return {
            'num_words': self.num_words,
            'bits_per_word': self.bits_per_word,
            'signature_bits': self.signature_bits,
            'seed': self.seed,
            'max_word_value': (self.num_words << self.bits_per_word) - 1,
        }


_default_generator = IndexGenerator()


def generate_words(fingerprint) -> tuple[Optional[int], ...]:
    """Generate words with the default parameters."""
    return _default_generator.generate(fingerprint)


__all__ = ['IndexGenerator', 'generate_words']
