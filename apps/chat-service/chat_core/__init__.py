"""
chat-service core: ranked per-chat roles, the role level store and the
permission policies that gate chat, member, role and message mutations.
"""
