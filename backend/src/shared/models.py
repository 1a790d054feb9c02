"""
Data models and status constants for the photo ordering platform.
Based on the order workflow: Order → Task → Assignment (proposed) → Confirmed → In progress → QA → Completed
"""


class OrderStatus:
    """Order lifecycle statuses."""
    PENDING_INPUT = 'PENDING_INPUT'
    PROMPT_BUILDING = 'PROMPT_BUILDING'
    GENERATING = 'GENERATING'
    PENDING_REVIEW = 'PENDING_REVIEW'
    IN_PROGRESS = 'IN_PROGRESS'
    REVISION = 'REVISION'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'

    ALL = (
        PENDING_INPUT, PROMPT_BUILDING, GENERATING, PENDING_REVIEW,
        IN_PROGRESS, REVISION, COMPLETED, CANCELLED,
    )


class TaskStatus:
    """Task lifecycle statuses."""
    PENDING = 'PENDING'
    ASSIGNED = 'ASSIGNED'
    IN_PROGRESS = 'IN_PROGRESS'
    QA_PENDING = 'QA_PENDING'
    QA_FAILED = 'QA_FAILED'
    COMPLETED = 'COMPLETED'
    COMPLAINT = 'COMPLAINT'

    # Statuses that count toward a designer's load
    ACTIVE = (PENDING, ASSIGNED, IN_PROGRESS)

    ALL = (PENDING, ASSIGNED, IN_PROGRESS, QA_PENDING, QA_FAILED, COMPLETED, COMPLAINT)


class AssignmentStatus:
    """Task assignment (proposal) statuses. Only PENDING may transition."""
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    REJECTED = 'REJECTED'
    EXPIRED = 'EXPIRED'

    TERMINAL = (CONFIRMED, REJECTED, EXPIRED)


class OrderPriority:
    """Order priorities, priced with the settings multipliers."""
    NORMAL = 'NORMAL'
    EXPRESS = 'EXPRESS'
    URGENT = 'URGENT'

    ALL = (NORMAL, EXPRESS, URGENT)


class QueueMode:
    """Designer selection policies."""
    ROUND_ROBIN = 'round_robin'
    LEAST_LOADED = 'least_loaded'
    PRIORITY = 'priority'

    ALL = (ROUND_ROBIN, LEAST_LOADED, PRIORITY)


class UserRole:
    """Closed set of roles carried in the identity claims."""
    CLIENT = 'CLIENT'
    DESIGNER = 'DESIGNER'
    ADMIN = 'ADMIN'

    ALL = (CLIENT, DESIGNER, ADMIN)


class OrderSourceType:
    """Where the order's source images came from."""
    UPLOAD = 'UPLOAD'
    URL = 'URL'


class ImageType:
    """Image roles within an order."""
    ORIGINAL = 'ORIGINAL'
    AI_PREVIEW = 'AI_PREVIEW'
    EDITED = 'EDITED'
    FINAL = 'FINAL'


class OrderStyle:
    """Visual styles a client can request."""
    CLEAN = 'CLEAN'
    INDUSTRIAL = 'INDUSTRIAL'
    PREMIUM = 'PREMIUM'
    LIFESTYLE = 'LIFESTYLE'
    MINIMAL = 'MINIMAL'

    ALL = (CLEAN, INDUSTRIAL, PREMIUM, LIFESTYLE, MINIMAL)


class OrderPlatform:
    """Target sales platforms."""
    ALLEGRO = 'ALLEGRO'
    AMAZON = 'AMAZON'
    INSTAGRAM = 'INSTAGRAM'
    FACEBOOK = 'FACEBOOK'
    LANDING_PAGE = 'LANDING_PAGE'
    UNIVERSAL = 'UNIVERSAL'

    ALL = (ALLEGRO, AMAZON, INSTAGRAM, FACEBOOK, LANDING_PAGE, UNIVERSAL)


class OrderBackground:
    """Background treatments."""
    WHITE = 'WHITE'
    CONTEXTUAL = 'CONTEXTUAL'
    AI_GENERATED = 'AI_GENERATED'
    TRANSPARENT = 'TRANSPARENT'

    ALL = (WHITE, CONTEXTUAL, AI_GENERATED, TRANSPARENT)


class FundingSource:
    """How the credit ledger settled an order."""
    FREE_CREDIT = 'FREE_CREDIT'
    PACKAGE = 'PACKAGE'
    CHECKOUT = 'CHECKOUT'
