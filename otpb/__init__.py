"""otpb: build Erlang/OTP release archives per tag and publish them to GitHub Releases."""

__version__ = "0.3.0"
