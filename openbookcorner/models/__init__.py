from openbookcorner.models.book import Book
from openbookcorner.models.book_request import BookDonation, BookRequest, DonationStatus, RequestStatus
from openbookcorner.models.borrow import BorrowStatus, BorrowTransaction
from openbookcorner.models.library import Library
from openbookcorner.models.session import EmailVerificationCode, UserSession
from openbookcorner.models.user import User, UserRole

__all__ = [
    "Book",
    "BookDonation",
    "BookRequest",
    "BorrowStatus",
    "BorrowTransaction",
    "DonationStatus",
    "EmailVerificationCode",
    "Library",
    "RequestStatus",
    "User",
    "UserRole",
    "UserSession",
]
