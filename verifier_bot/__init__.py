"""Core of the mod verification bot.

The modules here hold the verification workflow and its GitHub-backed record
stores; ``bots.verification`` wires them to Discord.
"""
