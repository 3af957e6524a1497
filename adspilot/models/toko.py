from sqlalchemy import Column, String, Integer, Float, Text, ForeignKey
from .base import BaseModel


class Toko(BaseModel):
    __tablename__ = "data_toko"

    id_toko = Column(String(100), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    nama_toko = Column(String(255))

    # Session marketplace
    cookies = Column(Text)
    status_cookies = Column(String(20), default="aktif", nullable=False)  # aktif, expired

    # Saldo iklan (rupiah)
    saldo = Column(Float)

    def __repr__(self):
        return f"<Toko(id_toko='{self.id_toko}', status_cookies='{self.status_cookies}')>"
