"""
Genre Profiles

Static genre -> partial audio-feature profile table used to estimate
features for tracks without first-party audio analysis. Order matters:
partial genre matches take the first entry that matches.
"""

from typing import Dict

GenreProfile = Dict[str, float]

GENRE_PROFILES: Dict[str, GenreProfile] = {
    # Electronic / Dance
    "edm": {"energy": 0.85, "valence": 0.75, "danceability": 0.9, "tempo": 128, "acousticness": 0.05, "instrumentalness": 0.7},
    "house": {"energy": 0.8, "valence": 0.7, "danceability": 0.85, "tempo": 125, "acousticness": 0.05, "instrumentalness": 0.75},
    "techno": {"energy": 0.85, "valence": 0.6, "danceability": 0.88, "tempo": 130, "acousticness": 0.03, "instrumentalness": 0.8},
    "dubstep": {"energy": 0.9, "valence": 0.55, "danceability": 0.75, "tempo": 140, "acousticness": 0.05, "instrumentalness": 0.7},
    "trance": {"energy": 0.8, "valence": 0.65, "danceability": 0.8, "tempo": 138, "acousticness": 0.05, "instrumentalness": 0.85},
    "electro": {"energy": 0.85, "valence": 0.7, "danceability": 0.85, "tempo": 128, "acousticness": 0.05, "instrumentalness": 0.75},
    "drum and bass": {"energy": 0.9, "valence": 0.65, "danceability": 0.8, "tempo": 174, "acousticness": 0.05, "instrumentalness": 0.75},
    "dnb": {"energy": 0.9, "valence": 0.65, "danceability": 0.8, "tempo": 174, "acousticness": 0.05, "instrumentalness": 0.75},
    "trap": {"energy": 0.75, "valence": 0.5, "danceability": 0.8, "tempo": 140, "acousticness": 0.1, "instrumentalness": 0.5},
    "future bass": {"energy": 0.75, "valence": 0.7, "danceability": 0.75, "tempo": 150, "acousticness": 0.1, "instrumentalness": 0.6},
    "bass": {"energy": 0.8, "valence": 0.6, "danceability": 0.8, "tempo": 140, "acousticness": 0.1, "instrumentalness": 0.65},

    # Hip Hop / Rap
    "hip hop": {"energy": 0.7, "valence": 0.55, "danceability": 0.75, "tempo": 95, "acousticness": 0.15, "instrumentalness": 0.2, "speechiness": 0.4},
    "rap": {"energy": 0.7, "valence": 0.55, "danceability": 0.75, "tempo": 95, "acousticness": 0.15, "instrumentalness": 0.15, "speechiness": 0.45},
    "drill": {"energy": 0.75, "valence": 0.45, "danceability": 0.7, "tempo": 140, "acousticness": 0.1, "instrumentalness": 0.2, "speechiness": 0.4},

    # Pop
    "pop": {"energy": 0.65, "valence": 0.7, "danceability": 0.7, "tempo": 120, "acousticness": 0.2, "instrumentalness": 0.05, "speechiness": 0.1},
    "dance pop": {"energy": 0.75, "valence": 0.75, "danceability": 0.85, "tempo": 125, "acousticness": 0.15, "instrumentalness": 0.1},
    "electropop": {"energy": 0.7, "valence": 0.7, "danceability": 0.8, "tempo": 122, "acousticness": 0.15, "instrumentalness": 0.2},
    "indie pop": {"energy": 0.6, "valence": 0.65, "danceability": 0.6, "tempo": 115, "acousticness": 0.35, "instrumentalness": 0.1},
    "synth-pop": {"energy": 0.65, "valence": 0.68, "danceability": 0.75, "tempo": 118, "acousticness": 0.1, "instrumentalness": 0.3},
    "art pop": {"energy": 0.55, "valence": 0.6, "danceability": 0.55, "tempo": 110, "acousticness": 0.25, "instrumentalness": 0.2},

    # Rock
    "rock": {"energy": 0.75, "valence": 0.6, "danceability": 0.5, "tempo": 125, "acousticness": 0.15, "instrumentalness": 0.3, "loudness": -5},
    "alternative": {"energy": 0.7, "valence": 0.55, "danceability": 0.55, "tempo": 120, "acousticness": 0.2, "instrumentalness": 0.25},
    "indie": {"energy": 0.6, "valence": 0.6, "danceability": 0.55, "tempo": 115, "acousticness": 0.35, "instrumentalness": 0.2},
    "indie rock": {"energy": 0.65, "valence": 0.58, "danceability": 0.55, "tempo": 118, "acousticness": 0.3, "instrumentalness": 0.25},
    "punk": {"energy": 0.85, "valence": 0.55, "danceability": 0.6, "tempo": 160, "acousticness": 0.1, "instrumentalness": 0.2, "loudness": -4},
    "metal": {"energy": 0.9, "valence": 0.45, "danceability": 0.45, "tempo": 140, "acousticness": 0.05, "instrumentalness": 0.4, "loudness": -3},
    "hard rock": {"energy": 0.85, "valence": 0.5, "danceability": 0.5, "tempo": 130, "acousticness": 0.1, "instrumentalness": 0.35, "loudness": -4},
    "classic rock": {"energy": 0.7, "valence": 0.6, "danceability": 0.55, "tempo": 120, "acousticness": 0.15, "instrumentalness": 0.35},

    # R&B / Soul
    "r&b": {"energy": 0.55, "valence": 0.6, "danceability": 0.7, "tempo": 90, "acousticness": 0.25, "instrumentalness": 0.1, "speechiness": 0.15},
    "soul": {"energy": 0.6, "valence": 0.65, "danceability": 0.65, "tempo": 95, "acousticness": 0.3, "instrumentalness": 0.15, "liveness": 0.25},
    "neo soul": {"energy": 0.55, "valence": 0.6, "danceability": 0.65, "tempo": 88, "acousticness": 0.35, "instrumentalness": 0.15},
    "funk": {"energy": 0.75, "valence": 0.75, "danceability": 0.85, "tempo": 110, "acousticness": 0.2, "instrumentalness": 0.3},

    # Jazz / Blues
    "jazz": {"energy": 0.45, "valence": 0.55, "danceability": 0.5, "tempo": 120, "acousticness": 0.6, "instrumentalness": 0.7, "liveness": 0.35},
    "blues": {"energy": 0.5, "valence": 0.45, "danceability": 0.45, "tempo": 95, "acousticness": 0.55, "instrumentalness": 0.5, "liveness": 0.3},
    "smooth jazz": {"energy": 0.4, "valence": 0.6, "danceability": 0.4, "tempo": 100, "acousticness": 0.5, "instrumentalness": 0.75},

    # Folk / Acoustic
    "folk": {"energy": 0.45, "valence": 0.55, "danceability": 0.4, "tempo": 100, "acousticness": 0.8, "instrumentalness": 0.3},
    "acoustic": {"energy": 0.4, "valence": 0.55, "danceability": 0.35, "tempo": 95, "acousticness": 0.85, "instrumentalness": 0.25},
    "singer-songwriter": {"energy": 0.4, "valence": 0.5, "danceability": 0.35, "tempo": 90, "acousticness": 0.75, "instrumentalness": 0.2},
    "americana": {"energy": 0.5, "valence": 0.55, "danceability": 0.45, "tempo": 105, "acousticness": 0.7, "instrumentalness": 0.3},

    # Country
    "country": {"energy": 0.55, "valence": 0.65, "danceability": 0.55, "tempo": 115, "acousticness": 0.5, "instrumentalness": 0.2},
    "contemporary country": {"energy": 0.6, "valence": 0.7, "danceability": 0.6, "tempo": 120, "acousticness": 0.4, "instrumentalness": 0.15},

    # Latin
    "latin": {"energy": 0.7, "valence": 0.75, "danceability": 0.8, "tempo": 110, "acousticness": 0.25, "instrumentalness": 0.2},
    "reggaeton": {"energy": 0.75, "valence": 0.7, "danceability": 0.85, "tempo": 95, "acousticness": 0.15, "instrumentalness": 0.2},
    "salsa": {"energy": 0.75, "valence": 0.8, "danceability": 0.85, "tempo": 180, "acousticness": 0.3, "instrumentalness": 0.4, "liveness": 0.3},
    "bachata": {"energy": 0.6, "valence": 0.65, "danceability": 0.75, "tempo": 125, "acousticness": 0.35, "instrumentalness": 0.3},

    # Classical / Instrumental
    "classical": {"energy": 0.35, "valence": 0.5, "danceability": 0.2, "tempo": 100, "acousticness": 0.9, "instrumentalness": 0.95, "liveness": 0.4},
    "orchestra": {"energy": 0.4, "valence": 0.55, "danceability": 0.25, "tempo": 110, "acousticness": 0.85, "instrumentalness": 0.95},
    "piano": {"energy": 0.3, "valence": 0.5, "danceability": 0.2, "tempo": 90, "acousticness": 0.9, "instrumentalness": 0.95},
    "instrumental": {"energy": 0.45, "valence": 0.55, "danceability": 0.35, "tempo": 105, "acousticness": 0.6, "instrumentalness": 0.9},

    # Ambient / Chill
    "ambient": {"energy": 0.25, "valence": 0.5, "danceability": 0.25, "tempo": 80, "acousticness": 0.5, "instrumentalness": 0.9},
    "chillout": {"energy": 0.35, "valence": 0.6, "danceability": 0.4, "tempo": 90, "acousticness": 0.4, "instrumentalness": 0.7},
    "lo-fi": {"energy": 0.4, "valence": 0.55, "danceability": 0.45, "tempo": 85, "acousticness": 0.35, "instrumentalness": 0.75},
    "downtempo": {"energy": 0.4, "valence": 0.55, "danceability": 0.5, "tempo": 95, "acousticness": 0.35, "instrumentalness": 0.65},

    # Reggae / Ska
    "reggae": {"energy": 0.55, "valence": 0.7, "danceability": 0.7, "tempo": 80, "acousticness": 0.35, "instrumentalness": 0.25},
    "ska": {"energy": 0.7, "valence": 0.75, "danceability": 0.75, "tempo": 160, "acousticness": 0.25, "instrumentalness": 0.3},
    "dub": {"energy": 0.5, "valence": 0.6, "danceability": 0.65, "tempo": 75, "acousticness": 0.2, "instrumentalness": 0.6},

    # World Music
    "world": {"energy": 0.55, "valence": 0.6, "danceability": 0.6, "tempo": 110, "acousticness": 0.5, "instrumentalness": 0.4},
    "afrobeat": {"energy": 0.75, "valence": 0.75, "danceability": 0.85, "tempo": 115, "acousticness": 0.3, "instrumentalness": 0.35},
    "k-pop": {"energy": 0.75, "valence": 0.75, "danceability": 0.8, "tempo": 130, "acousticness": 0.15, "instrumentalness": 0.1},
    "j-pop": {"energy": 0.7, "valence": 0.75, "danceability": 0.75, "tempo": 125, "acousticness": 0.2, "instrumentalness": 0.15},

    # Additional Electronic Subgenres
    "progressive house": {"energy": 0.78, "valence": 0.68, "danceability": 0.82, "tempo": 128, "acousticness": 0.05, "instrumentalness": 0.8},
    "deep house": {"energy": 0.65, "valence": 0.65, "danceability": 0.8, "tempo": 122, "acousticness": 0.08, "instrumentalness": 0.7},
    "tech house": {"energy": 0.8, "valence": 0.6, "danceability": 0.85, "tempo": 125, "acousticness": 0.05, "instrumentalness": 0.75},
    "minimal": {"energy": 0.6, "valence": 0.5, "danceability": 0.7, "tempo": 125, "acousticness": 0.05, "instrumentalness": 0.85},
    "hardstyle": {"energy": 0.95, "valence": 0.65, "danceability": 0.8, "tempo": 150, "acousticness": 0.03, "instrumentalness": 0.7},
    "jungle": {"energy": 0.88, "valence": 0.6, "danceability": 0.78, "tempo": 170, "acousticness": 0.05, "instrumentalness": 0.7},
    "breakbeat": {"energy": 0.75, "valence": 0.6, "danceability": 0.75, "tempo": 135, "acousticness": 0.1, "instrumentalness": 0.6},
    "garage": {"energy": 0.7, "valence": 0.65, "danceability": 0.8, "tempo": 130, "acousticness": 0.1, "instrumentalness": 0.5},
    "uk garage": {"energy": 0.72, "valence": 0.65, "danceability": 0.82, "tempo": 130, "acousticness": 0.1, "instrumentalness": 0.45},
    "grime": {"energy": 0.8, "valence": 0.5, "danceability": 0.75, "tempo": 140, "acousticness": 0.08, "instrumentalness": 0.3, "speechiness": 0.35},
    "vaporwave": {"energy": 0.4, "valence": 0.5, "danceability": 0.45, "tempo": 95, "acousticness": 0.15, "instrumentalness": 0.8},
    "synthwave": {"energy": 0.7, "valence": 0.65, "danceability": 0.7, "tempo": 115, "acousticness": 0.05, "instrumentalness": 0.75},
    "wave": {"energy": 0.65, "valence": 0.55, "danceability": 0.65, "tempo": 140, "acousticness": 0.1, "instrumentalness": 0.6},

    # More Hip Hop Subgenres
    "boom bap": {"energy": 0.65, "valence": 0.55, "danceability": 0.7, "tempo": 90, "acousticness": 0.15, "instrumentalness": 0.25, "speechiness": 0.4},
    "trap metal": {"energy": 0.9, "valence": 0.4, "danceability": 0.65, "tempo": 145, "acousticness": 0.05, "instrumentalness": 0.2, "speechiness": 0.4},
    "cloud rap": {"energy": 0.55, "valence": 0.5, "danceability": 0.65, "tempo": 70, "acousticness": 0.15, "instrumentalness": 0.3, "speechiness": 0.35},
    "phonk": {"energy": 0.75, "valence": 0.45, "danceability": 0.75, "tempo": 140, "acousticness": 0.1, "instrumentalness": 0.4, "speechiness": 0.25},

    # More Rock Subgenres
    "post-rock": {"energy": 0.65, "valence": 0.5, "danceability": 0.4, "tempo": 115, "acousticness": 0.25, "instrumentalness": 0.7},
    "post-punk": {"energy": 0.7, "valence": 0.45, "danceability": 0.55, "tempo": 125, "acousticness": 0.15, "instrumentalness": 0.3},
    "shoegaze": {"energy": 0.6, "valence": 0.45, "danceability": 0.4, "tempo": 110, "acousticness": 0.2, "instrumentalness": 0.5},
    "emo": {"energy": 0.75, "valence": 0.35, "danceability": 0.5, "tempo": 140, "acousticness": 0.15, "instrumentalness": 0.2},
    "screamo": {"energy": 0.9, "valence": 0.35, "danceability": 0.45, "tempo": 160, "acousticness": 0.05, "instrumentalness": 0.15, "speechiness": 0.3},
    "grunge": {"energy": 0.75, "valence": 0.4, "danceability": 0.45, "tempo": 115, "acousticness": 0.2, "instrumentalness": 0.3},
    "stoner rock": {"energy": 0.7, "valence": 0.5, "danceability": 0.45, "tempo": 100, "acousticness": 0.15, "instrumentalness": 0.45},
    "doom metal": {"energy": 0.75, "valence": 0.3, "danceability": 0.35, "tempo": 75, "acousticness": 0.05, "instrumentalness": 0.5, "loudness": -3},
    "black metal": {"energy": 0.95, "valence": 0.25, "danceability": 0.35, "tempo": 180, "acousticness": 0.05, "instrumentalness": 0.45, "loudness": -2},
    "death metal": {"energy": 0.95, "valence": 0.3, "danceability": 0.4, "tempo": 170, "acousticness": 0.05, "instrumentalness": 0.4, "loudness": -2},
    "prog rock": {"energy": 0.65, "valence": 0.55, "danceability": 0.4, "tempo": 120, "acousticness": 0.2, "instrumentalness": 0.55},
    "math rock": {"energy": 0.7, "valence": 0.55, "danceability": 0.4, "tempo": 145, "acousticness": 0.15, "instrumentalness": 0.6},

    # Indie Subgenres
    "indie folk": {"energy": 0.45, "valence": 0.55, "danceability": 0.4, "tempo": 100, "acousticness": 0.75, "instrumentalness": 0.3},
    "indie electronic": {"energy": 0.65, "valence": 0.65, "danceability": 0.7, "tempo": 120, "acousticness": 0.15, "instrumentalness": 0.4},
    "bedroom pop": {"energy": 0.5, "valence": 0.6, "danceability": 0.55, "tempo": 105, "acousticness": 0.4, "instrumentalness": 0.25},
    "dream pop": {"energy": 0.5, "valence": 0.6, "danceability": 0.45, "tempo": 100, "acousticness": 0.3, "instrumentalness": 0.35},

    # Latin Subgenres
    "cumbia": {"energy": 0.7, "valence": 0.75, "danceability": 0.85, "tempo": 100, "acousticness": 0.3, "instrumentalness": 0.4},
    "merengue": {"energy": 0.8, "valence": 0.85, "danceability": 0.9, "tempo": 130, "acousticness": 0.25, "instrumentalness": 0.35},
    "bossa nova": {"energy": 0.4, "valence": 0.7, "danceability": 0.55, "tempo": 85, "acousticness": 0.7, "instrumentalness": 0.4},
    "samba": {"energy": 0.75, "valence": 0.8, "danceability": 0.85, "tempo": 180, "acousticness": 0.35, "instrumentalness": 0.45, "liveness": 0.35},
    "tango": {"energy": 0.6, "valence": 0.5, "danceability": 0.75, "tempo": 120, "acousticness": 0.45, "instrumentalness": 0.5},
    "latin trap": {"energy": 0.75, "valence": 0.65, "danceability": 0.85, "tempo": 95, "acousticness": 0.1, "instrumentalness": 0.2, "speechiness": 0.35},

    # More Pop Subgenres
    "bubblegum pop": {"energy": 0.75, "valence": 0.85, "danceability": 0.8, "tempo": 128, "acousticness": 0.1, "instrumentalness": 0.05},
    "hyperpop": {"energy": 0.85, "valence": 0.75, "danceability": 0.8, "tempo": 150, "acousticness": 0.05, "instrumentalness": 0.15},
    "power pop": {"energy": 0.8, "valence": 0.75, "danceability": 0.7, "tempo": 140, "acousticness": 0.15, "instrumentalness": 0.2},

    # Mood/Vibe Genres
    "sad": {"energy": 0.35, "valence": 0.25, "danceability": 0.35, "tempo": 85, "acousticness": 0.55, "instrumentalness": 0.3},
    "chill": {"energy": 0.35, "valence": 0.6, "danceability": 0.45, "tempo": 90, "acousticness": 0.4, "instrumentalness": 0.6},
    "party": {"energy": 0.85, "valence": 0.8, "danceability": 0.9, "tempo": 128, "acousticness": 0.1, "instrumentalness": 0.2},
    "workout": {"energy": 0.9, "valence": 0.7, "danceability": 0.85, "tempo": 135, "acousticness": 0.05, "instrumentalness": 0.3},
    "study": {"energy": 0.3, "valence": 0.55, "danceability": 0.3, "tempo": 90, "acousticness": 0.5, "instrumentalness": 0.85},
    "sleep": {"energy": 0.2, "valence": 0.5, "danceability": 0.2, "tempo": 70, "acousticness": 0.6, "instrumentalness": 0.9},

    # More Electronic
    "glitch": {"energy": 0.65, "valence": 0.5, "danceability": 0.6, "tempo": 130, "acousticness": 0.05, "instrumentalness": 0.85},
    "idm": {"energy": 0.6, "valence": 0.5, "danceability": 0.5, "tempo": 125, "acousticness": 0.1, "instrumentalness": 0.9},
    "trip hop": {"energy": 0.5, "valence": 0.45, "danceability": 0.6, "tempo": 95, "acousticness": 0.2, "instrumentalness": 0.6},
    "big beat": {"energy": 0.85, "valence": 0.7, "danceability": 0.8, "tempo": 135, "acousticness": 0.05, "instrumentalness": 0.5},

    # More Alternative
    "post-hardcore": {"energy": 0.85, "valence": 0.45, "danceability": 0.5, "tempo": 155, "acousticness": 0.1, "instrumentalness": 0.25},
    "metalcore": {"energy": 0.9, "valence": 0.4, "danceability": 0.45, "tempo": 160, "acousticness": 0.05, "instrumentalness": 0.3, "loudness": -3},
    "nu metal": {"energy": 0.85, "valence": 0.45, "danceability": 0.55, "tempo": 135, "acousticness": 0.1, "instrumentalness": 0.25},
}

DEFAULT_FEATURES: Dict[str, float] = {
    "energy": 0.6,
    "valence": 0.6,
    "danceability": 0.6,
    "tempo": 120.0,
    "acousticness": 0.3,
    "instrumentalness": 0.3,
    "loudness": -8.0,
    "speechiness": 0.1,
    "liveness": 0.15,
}
