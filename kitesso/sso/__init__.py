"""
DiscourseConnect handshake: verify the forum's signed request, send the user
through Kite Connect, and hand a signed identity payload back to the forum.
"""
