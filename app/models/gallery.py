"""Photo galleries delivered to clients through the portal."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Gallery(Base):
    __tablename__ = "galleries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_link_id = Column(Integer, ForeignKey("client_links.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    slug = Column(String(300), unique=True, nullable=False)
    # Toggled manually by the photographer; never derived
    is_visible_to_client = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    photos = relationship(
        "GalleryPhoto",
        back_populates="gallery",
        order_by="GalleryPhoto.sort_order",
        cascade="all, delete-orphan",
    )


class GalleryPhoto(Base):
    __tablename__ = "gallery_photos"

    id = Column(Integer, primary_key=True, index=True)
    gallery_id = Column(Integer, ForeignKey("galleries.id", ondelete="CASCADE"), nullable=False, index=True)

    filename = Column(String(255), nullable=False)  # name on disk
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False, default="image/jpeg")
    size = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    gallery = relationship("Gallery", back_populates="photos")
