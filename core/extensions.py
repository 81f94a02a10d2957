from core.imports import Bcrypt, Swagger, JWTManager, SQLAlchemy, CORS, Migrate, Mail

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
bcrypt = Bcrypt()
mail = Mail()
swagger = Swagger()
cors = CORS(resources={r"/api/*": {"origins": "*"}}, supports_credentials=True)
