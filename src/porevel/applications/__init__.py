"""Applications built on top of PoreVel, currently utilities shared by the tests."""
