from openbookcorner.schemas.auth import CodeRequest, CodeVerify, TokenResponse
from openbookcorner.schemas.book import BookCreate, BookListResponse, BookResponse, BookUpdate
from openbookcorner.schemas.book_request import (
    BookRequestCreate,
    BookRequestDecision,
    BookRequestResponse,
    DonationCreate,
    DonationReject,
    DonationResponse,
)
from openbookcorner.schemas.borrow import BorrowCreate, BorrowListResponse, BorrowResponse
from openbookcorner.schemas.library import LibraryCreate, LibraryResponse, LibraryUpdate
from openbookcorner.schemas.user import AdminInvite, UserInvite, UserResponse, UserUpdate

__all__ = [
    "AdminInvite",
    "BookCreate",
    "BookListResponse",
    "BookRequestCreate",
    "BookRequestDecision",
    "BookRequestResponse",
    "BookResponse",
    "BookUpdate",
    "BorrowCreate",
    "BorrowListResponse",
    "BorrowResponse",
    "CodeRequest",
    "CodeVerify",
    "DonationCreate",
    "DonationReject",
    "DonationResponse",
    "LibraryCreate",
    "LibraryResponse",
    "LibraryUpdate",
    "TokenResponse",
    "UserInvite",
    "UserResponse",
    "UserUpdate",
]
