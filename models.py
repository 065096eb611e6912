import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, BigInteger, JSON, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from db import Base

# 테이블 행을 엔티티(dict)로 내보낼 때 문자열로 바꾸는 참조 컬럼
ID_LIKE_COLUMNS = (
    'id', 'parent_order_id', 'customer_id', 'order_id', 'company_id', 'department_id', 'position_id',
)


class EntityMixin:
    """테이블 편집 화면에서 쓰는 엔티티 변환 (id는 문자열로 통일)"""

    def to_dict(self):
        result = {}
        for c in self.__table__.columns:
            value = getattr(self, c.name)
            if c.name in ID_LIKE_COLUMNS and value is not None:
                value = str(value)
            elif isinstance(value, datetime.datetime):
                value = value.strftime('%Y-%m-%d %H:%M:%S')
            result[c.name] = value
        return result


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    name = Column(String, nullable=False, default='사용자')
    role = Column(String, nullable=False, default='VIEWER')
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.datetime.now)
    last_login = Column(DateTime)

    def to_dict(self):
        return {
            'id': str(self.id),
            'username': self.username,
            'name': self.name,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.created_at.strftime('%Y-%m-%d %H:%M:%S') if self.created_at else None,
            'last_login': self.last_login.strftime('%Y-%m-%d %H:%M:%S') if self.last_login else None
        }


class SecurityLog(Base):
    __tablename__ = 'security_logs'
    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, server_default=func.now(), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    message = Column(String, nullable=False)

    user = relationship("User")

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp.strftime('%Y-%m-%d %H:%M:%S') if self.timestamp else None,
            'user_id': self.user_id,
            'message': self.message,
        }


class Company(EntityMixin, Base):
    __tablename__ = 'companies'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    business_number = Column(String(10), unique=True)  # 사업자등록번호 (숫자 10자리)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)


class Department(EntityMixin, Base):
    __tablename__ = 'departments'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)


class Position(EntityMixin, Base):
    __tablename__ = 'positions'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)


class Customer(EntityMixin, Base):
    __tablename__ = 'customers'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    customer_type = Column(String, nullable=False, default='발주처')  # 발주처/검증업체/외상매입처/기타
    status = Column(String, nullable=False, default='거래중')         # 거래중/중단
    business_number = Column(String(10))
    manager_name = Column(String)
    phone = Column(String)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)


class Order(EntityMixin, Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True)
    order_number = Column(String, nullable=False, unique=True)        # 비워서 생성하면 YYYY-NNN 자동 채번
    contract_name = Column(String, nullable=False)
    contract_type = Column(String, nullable=False, default='new')     # new(신규) / change(변경)
    contract_status = Column(String, nullable=False, default='quotation')
    contract_date = Column(String, nullable=False)                    # YYYY-MM-DD
    contract_amount = Column(BigInteger, nullable=False, default=0)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=True)
    parent_order_id = Column(Integer, ForeignKey('orders.id'), nullable=True)  # 변경 계약의 원 계약
    manager_name = Column(String)
    attachments = Column(JSON)  # [{name, size, path, uploadedAt}] 또는 경로 문자열 목록
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)

    customer = relationship("Customer")


class Employee(EntityMixin, Base):
    __tablename__ = 'employees'

    id = Column(Integer, primary_key=True)
    employee_number = Column(String, nullable=False, unique=True)  # 비워서 생성하면 입사연도 + 일련번호
    name = Column(String, nullable=False)
    email = Column(String, unique=True)
    employment_status = Column(String, nullable=False, default='active')  # active(재직) / inactive(퇴사)
    hire_date = Column(String, nullable=False)                             # YYYY-MM-DD
    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False)
    department_id = Column(Integer, ForeignKey('departments.id'), nullable=True)
    position_id = Column(Integer, ForeignKey('positions.id'), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)

    company = relationship("Company")
    department = relationship("Department")
    position = relationship("Position")


class Billing(EntityMixin, Base):
    __tablename__ = 'billings'

    id = Column(Integer, primary_key=True)
    billing_number = Column(String, unique=True)                     # 청구번호 (선택)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=True)  # 비우면 수주의 고객
    billing_date = Column(String, nullable=False)                    # YYYY-MM-DD
    billing_type = Column(String, nullable=False, default='contract')  # contract(계약금) / interim(중도금) / final(잔금)
    billing_amount = Column(BigInteger, nullable=False, default=0)
    expected_payment_date = Column(String, nullable=False)
    invoice_status = Column(String, nullable=False, default='not_issued')  # issued(발행) / not_issued(미발행)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)

    order = relationship("Order")
    customer = relationship("Customer")


class UserModuleAccess(Base):
    """사용자별 모듈 접근 허용 여부 (관리자는 행과 무관하게 전체 허용)"""
    __tablename__ = 'user_module_access'
    __table_args__ = (UniqueConstraint('user_id', 'module_code', name='uq_user_module'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    module_code = Column(String, nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)

    user = relationship("User")

    def to_dict(self):
        return {
            'user_id': str(self.user_id),
            'module_code': self.module_code,
            'is_enabled': self.is_enabled,
        }
