class PartnerNetworkError(Exception):
    """Base class for partner network business-rule errors"""
    pass


class PartnerNotFound(PartnerNetworkError):
    pass


class CycleDetected(PartnerNetworkError):
    """Attachment would make a partner its own ancestor"""
    pass


class AlreadyAttached(PartnerNetworkError):
    """Partner already has a recruiting parent"""
    pass


class ReferralNotFound(PartnerNetworkError):
    pass


class ReferralNotEligible(PartnerNetworkError):
    """Commission generation requested on a referral that is not paid"""
    pass


class ReferralValidationError(PartnerNetworkError):
    pass


class InvalidStatusTransition(PartnerNetworkError):
    pass


class CommissionPaymentNotFound(PartnerNetworkError):
    pass


class InvalidPaymentTransition(PartnerNetworkError):
    pass
