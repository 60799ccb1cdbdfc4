#backend/nocmon/models/telemetry.py
from sqlalchemy import Column, Integer, String, Float, DateTime
from nocmon.database import BaseMain

class _SensorColumns:
    """Temperature (suhu) and humidity (kelembapan) of one zone."""
    id = Column(Integer, primary_key=True)
    suhu = Column(Float, nullable=False)
    kelembapan = Column(Float, nullable=False)
    waktu = Column(DateTime, index=True, nullable=False)

class NocSensorData(_SensorColumns, BaseMain):
    __tablename__ = "sensor_data"

class UpsSensorData(_SensorColumns, BaseMain):
    __tablename__ = "sensor_data1"

class DatacenterSensorData(_SensorColumns, BaseMain):
    __tablename__ = "sensor_data2"

# zone -> table, in broadcast order
SENSOR_TABLES = {
    "noc": NocSensorData,
    "ups": UpsSensorData,
    "datacenter": DatacenterSensorData,
}

class ElectricalData(BaseMain):
    __tablename__ = "listrik_noc"

    id = Column(Integer, primary_key=True)

    # Per-phase voltage (V)
    phase_r = Column(Float)
    phase_s = Column(Float)
    phase_t = Column(Float)

    current_r = Column(Float)
    current_s = Column(Float)
    current_t = Column(Float)
    power_r = Column(Float)
    power_s = Column(Float)
    power_t = Column(Float)
    energy_r = Column(Float)
    energy_s = Column(Float)
    energy_t = Column(Float)
    frequency_r = Column(Float)
    frequency_s = Column(Float)
    frequency_t = Column(Float)
    pf_r = Column(Float)
    pf_s = Column(Float)
    pf_t = Column(Float)

    # 3-phase aggregates
    voltage_3ph = Column(Float)
    current_3ph = Column(Float)
    power_3ph = Column(Float)
    energy_3ph = Column(Float)
    frequency_3ph = Column(Float)
    pf_3ph = Column(Float)

    waktu = Column(DateTime, index=True, nullable=False)

class FireSmokeData(BaseMain):
    """
    api_value: flame sensor reading, below 50 means fire.
    asap_value: smoke sensor, 0 = smoke detected, 1 = normal.
    """
    __tablename__ = "api_asap_data"

    id = Column(Integer, primary_key=True)
    api_value = Column(Integer, nullable=False)
    asap_value = Column(Integer, nullable=False)
    waktu = Column(DateTime, index=True, nullable=False)

class User(BaseMain):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
