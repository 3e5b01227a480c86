"""Build-and-publish services.

Services implement the per-version workflow, coordinating the git checkout
(git/), external processes (platform/) and the release registry (net/).
Import from the submodules directly (``otpb.services.pipeline``, ...).
"""
