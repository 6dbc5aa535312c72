import logging
import bcrypt
from sqlalchemy import create_engine, Column, Integer, String, Text, ForeignKey, DateTime, or_
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session, relationship
import config

logger = logging.getLogger(__name__)

Base = declarative_base()

# --- MODELS ---
class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, default=config.ROLE_USER)

class Scan(Base):
    __tablename__ = 'scans'
    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey('assets.id'), nullable=True)
    scan_date = Column(DateTime, nullable=False)
    scan_location = Column(String, nullable=False)
    user_id = Column(Integer, nullable=True)
    asset = relationship("Asset", back_populates="scans")

class Asset(Base):
    __tablename__ = 'assets'
    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_code = Column(String, unique=True, nullable=False)
    name = Column(String)
    category = Column(String)
    status = Column(String, default="Active")
    location = Column(String)
    serial_number = Column(String)
    model = Column(String)
    manufacturer = Column(String)
    last_scanned = Column(DateTime)

    scans = relationship("Scan", order_by=Scan.id, back_populates="asset")

    def to_dict(self):
        return {
            "id": self.id,
            "assetCode": self.asset_code,
            "name": self.name,
            "category": self.category,
            "status": self.status,
            "location": self.location,
            "serialNumber": self.serial_number,
            "model": self.model,
            "manufacturer": self.manufacturer,
        }

class KeyValue(Base):
    __tablename__ = 'local_storage'
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)

# --- CONTROLLER ---
class Database:
    def __init__(self, db_url=None):
        url = db_url or config.DB_URL
        connect_args = {'check_same_thread': False} if url.startswith('sqlite') else {}
        self.engine = create_engine(url, connect_args=connect_args)
        Base.metadata.create_all(self.engine)
        self.Session = scoped_session(sessionmaker(bind=self.engine))
        self.create_default_admin()

    def get_session(self):
        return self.Session()

    def dispose(self):
        self.Session.remove()
        self.engine.dispose()

    def create_default_admin(self):
        session = self.get_session()
        empty = session.query(User).count() == 0
        session.close()
        if empty:
            self.add_user("admin", "admin123", role=config.ROLE_SUPERADMIN)

    # --- USER AUTH ---
    def verify_user(self, username, password):
        session = self.get_session()
        user = session.query(User).filter_by(username=username).first()
        session.close()

        if user:
            if bcrypt.checkpw(password.encode('utf-8'), user.password_hash.encode('utf-8')):
                return (user.id, user.username, user.role)
        return None

    def add_user(self, username, password, role=config.ROLE_USER):
        session = self.get_session()
        if session.query(User).filter_by(username=username).first():
            session.close()
            return False

        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

        session.add(User(username=username, password_hash=hashed, role=role))
        session.commit()
        session.close()
        return True

    # --- ASSETS ---
    def add_asset(self, data):
        session = self.get_session()
        try:
            asset = Asset(
                asset_code=data["assetCode"], name=data.get("name"), category=data.get("category"),
                status=data.get("status", "Active"), location=data.get("location"),
                serial_number=data.get("serialNumber"), model=data.get("model"),
                manufacturer=data.get("manufacturer")
            )
            session.add(asset)
            session.commit()
            return asset.id
        except Exception as e:
            logger.warning("Add asset failed: %s", e)
            session.rollback()
            return None
        finally:
            session.close()

    def get_asset_by_code(self, code):
        session = self.get_session()
        asset = session.query(Asset).filter(or_(Asset.asset_code == code, Asset.serial_number == code)) \
            .order_by((Asset.asset_code == code).desc()).first()
        result = asset.to_dict() if asset else None
        session.close()
        return result

    def get_all_assets(self):
        session = self.get_session()
        results = [a.to_dict() for a in session.query(Asset).order_by(Asset.asset_code).all()]
        session.close()
        return results

    # --- SCANS ---
    def add_scan(self, asset_id, scan_date, scan_location, user_id=None):
        session = self.get_session()
        try:
            scan = Scan(asset_id=asset_id, scan_date=scan_date, scan_location=scan_location, user_id=user_id)
            session.add(scan)
            if asset_id is not None:
                asset = session.query(Asset).filter_by(id=asset_id).first()
                if asset:
                    asset.last_scanned = scan_date
            session.commit()
            return scan.id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_all_scans(self):
        session = self.get_session()
        scans = session.query(Scan).order_by(Scan.scan_date.desc()).limit(500).all()
        logs = []
        for s in scans:
            logs.append({
                "id": s.id, "assetId": s.asset_id, "scanDate": s.scan_date,
                "scanLocation": s.scan_location, "userId": s.user_id,
                "assetCode": s.asset.asset_code if s.asset else None
            })
        session.close()
        return logs

    # --- KEY/VALUE STORAGE ---
    def get_value(self, key):
        session = self.get_session()
        row = session.query(KeyValue).filter_by(key=key).first()
        value = row.value if row else None
        session.close()
        return value

    def set_value(self, key, value):
        session = self.get_session()
        try:
            row = session.query(KeyValue).filter_by(key=key).first()
            if row:
                row.value = value
            else:
                session.add(KeyValue(key=key, value=value))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def remove_value(self, key):
        session = self.get_session()
        row = session.query(KeyValue).filter_by(key=key).first()
        if row:
            session.delete(row)
            session.commit()
        session.close()


class LocalStorage:
    """Durable string key/value storage backed by the ``local_storage`` table."""

    def __init__(self, db):
        self.db = db

    def get(self, key):
        return self.db.get_value(key)

    def set(self, key, value):
        self.db.set_value(key, value)

    def remove(self, key):
        self.db.remove_value(key)
