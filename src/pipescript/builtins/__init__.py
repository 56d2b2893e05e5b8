"""Native modules shipped with pipescript."""
