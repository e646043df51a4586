"""
Standardwerte für die Terminal-Simulation.

Dieses Modul bündelt alle Default-Parameter (Raten, Verzögerungen,
Boarding-Schluss, Ankunftskurve) sowie eine Fallback-Tabelle für die
Sitzplatzanzahl pro Flugzeugtyp. Die Engine und die Konfigurationsklassen
lesen ihre Defaults ausschließlich von hier.
"""

# =========================================================
# Zeitraster
# =========================================================
DEFAULT_INTERVAL_MIN = 1
DEFAULT_ARRIVAL_SPAN_MIN = 120

# Boarding-Schluss (Minuten vor Abflug)
DEFAULT_BOARDING_CLOSE_MIN = 20

# =========================================================
# Stationen
# =========================================================
# Ticketschalter: Passagiere pro Minute
DEFAULT_TICKET_RATE_PER_MIN = 1.0
# Sicherheitskontrolle: Passagiere pro Stunde (Branchenstandard)
DEFAULT_CHECKPOINT_RATE_PER_HOUR = 120.0

# Werte der Layout-Fabrik
FACTORY_TICKET_RATE_PER_HOUR = 60.0       # 1 Pax/min
FACTORY_CHECKPOINT_RATE_PER_HOUR = 180.0  # 3 Pax/min

# =========================================================
# Wege
# =========================================================
# Fallback-Verzögerungen, wenn kein TravelTimeProvider eine Zeit liefert
DEFAULT_TRANSIT_DELAY_MIN = 5
DEFAULT_HOLD_DELAY_MIN = 5

# Gehgeschwindigkeit (m/s)
DEFAULT_WALK_SPEED_MPS = 1.34
MIN_WALK_SPEED_MPS = 0.1

# =========================================================
# Ankunftskurve (Minuten vor Abflug)
# =========================================================
DEFAULT_CURVE_WINDOW_START_MIN = 120
DEFAULT_CURVE_PEAK_MIN = 70
DEFAULT_CURVE_LEFT_SIGMA_MIN = 20.0
DEFAULT_CURVE_RIGHT_SIGMA_MIN = 10.0
DEFAULT_CURVE_LATE_CLAMP_MIN = 35
MIN_CURVE_SIGMA_MIN = 1.0

# =========================================================
# Sitzplätze pro Flugzeugtyp (Typ4) – Fallback für Flugtabellen
# =========================================================
DEFAULT_SEATS = 100

DEFAULT_SEATS_BY_TYP4 = {
    "A20N": 186,
    "A21N": 220,
    "A319": 144,
    "A320": 180,
    "A321": 220,
    "A333": 300,
    "A359": 325,
    "AT76": 70,
    "B38M": 189,
    "B738": 189,
    "B739": 189,
    "B77W": 396,
    "B789": 296,
    "BCS3": 145,
    "CRJ9": 90,
    "DH8D": 78,
    "E190": 100,
    "E195": 120,
}
