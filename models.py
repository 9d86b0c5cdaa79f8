from extensions import db

MEMBER = 'Member'
LIBRARIAN = 'Librarian'
ADMIN = 'Admin'
DEFAULT_ROLES = (MEMBER, LIBRARIAN, ADMIN)

user_roles = db.Table(
    'user_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('users.user_id'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('roles.role_id'), primary_key=True),
)


class Role(db.Model):
    __tablename__ = 'roles'
    role_id = db.Column(db.Integer, primary_key=True)
    role_name = db.Column(db.String(50), unique=True, nullable=False)


class User(db.Model):
    __tablename__ = 'users'
    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    roles = db.relationship('Role', secondary=user_roles, lazy='selectin', order_by='Role.role_id')

    @property
    def role_names(self):
        return [r.role_name for r in self.roles]


class Book(db.Model):
    __tablename__ = 'books'
    __table_args__ = (
        db.CheckConstraint('quantity_available >= 0', name='ck_books_quantity_available'),
    )
    book_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    author = db.Column(db.String(100), nullable=False)
    total_copies = db.Column(db.Integer, nullable=False)
    quantity_available = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            'book_id': self.book_id,
            'title': self.title,
            'author': self.author,
            'total_copies': self.total_copies,
            'quantity_available': self.quantity_available,
        }


class Loan(db.Model):
    __tablename__ = 'book_loans'
    loan_id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey('books.book_id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False, index=True)
    loan_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    return_date = db.Column(db.Date)
    returned_by = db.Column(db.Integer, db.ForeignKey('users.user_id'))
    book = db.relationship('Book', backref='loans')
    user = db.relationship('User', foreign_keys=[user_id], backref='loans')
