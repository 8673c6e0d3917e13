"""
License entitlement and secure media access engine.

Resolves license tiers, reconciles training access grants, signs
playback tokens for the video CDN and enforces the developer license
lapse policy.
"""
