"""
DiscourseConnect single sign-on bridge backed by Kite Connect logins.
"""
