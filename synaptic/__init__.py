"""Operations tooling for the Synaptic application stack."""

__version__ = "0.1.0"
