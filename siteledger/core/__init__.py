"""
Site allocation core: id generation, record assembly and error taxonomy.
"""
