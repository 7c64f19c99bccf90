"""
Game constants for the pig card game.
"""

# Table setup
PIGS_PER_PLAYER = 3
CARDS_PER_HAND = 3
MIN_PLAYERS = 2
MAX_PLAYERS = 4
ACTIONS_PER_TURN = 1

# Fixed supply per card type.
# Format: (card type value, count)
BASIC_CARDS = [
    ("mud", 21),
    ("barn", 9),
    ("bath", 8),
    ("rain", 4),
    ("lightning", 4),
    ("lightning_rod", 4),
    ("barn_lock", 4),
]

EXPANSION_CARDS = [
    ("beautiful_pig", 16),
    ("escape", 12),
    ("lucky_bird", 4),
]

BASIC_DECK_SIZE = sum(count for _, count in BASIC_CARDS)  # 54
EXPANSION_DECK_SIZE = BASIC_DECK_SIZE + sum(count for _, count in EXPANSION_CARDS)  # 86

# Rooms still waiting after this many seconds are reaped
ROOM_TTL_SECONDS = 24 * 60 * 60

# Placeholder sent in place of a hidden card
HIDDEN_CARD = {"hidden": True}
